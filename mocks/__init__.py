"""Mock services used by the integration tests."""
