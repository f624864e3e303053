class ConfigError(Exception):
    """Missing or invalid configuration. Raised before any network activity."""


class SitemapFetchError(Exception):
    pass


class SitemapParseError(Exception):
    pass


class CredentialError(Exception):
    """The Google service account credentials could not be exchanged for a token"""
