__all__ = ("EasyCacheError", "ConfigurationError")


class EasyCacheError(Exception): ...


class ConfigurationError(EasyCacheError): ...
