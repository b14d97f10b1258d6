pytest_plugins = ["clustersuite.pytest_plugin", "pytester"]
