"""
clustersuite integration tests

These tests run against the shared cluster of the session: a simulated
replica set of mongod containers unless CLUSTERSUITE_SERVER points at a
real deployment. They only run with ``pytest --integration``.

Port Range: 27100-27103 for the simulated nodes
"""
