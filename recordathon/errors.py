"""Exception types shared by the storage, editor and web layers."""


class RecordathonError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(RecordathonError):
    """Settings from the environment or command line are unusable."""


class ClientInputError(RecordathonError):
    """A request carried malformed JSON, base64, audio or an unusable name."""


class NotFoundError(RecordathonError):
    """The named recording (or its cut window) does not exist."""


class StorageIOError(RecordathonError):
    """Reading or writing a blob or the metadata file failed.

    After this is raised the durable copy may not match memory, so callers
    must never report success for the operation that raised it.
    """


class StartupCorruptionError(RecordathonError):
    """The metadata file exists but does not hold a valid cut mapping."""
