"""Domain Events: Records of things that happened while talking to the API."""
