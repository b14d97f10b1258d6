"""
clustersuite unit tests

These tests use in-memory fakes for the cluster, the simulated cluster
and Docker, so they run without MongoDB or a Docker daemon.
"""
