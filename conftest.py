pytest_plugins = ["docsign.testing_dependencies"]
