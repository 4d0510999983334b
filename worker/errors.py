class CatalogSyncError(Exception):
    pass


class GenerationError(CatalogSyncError):
    pass


class MalformedResponseError(CatalogSyncError):
    pass


class StorefrontError(CatalogSyncError):
    def __init__(self, message: str, status_code: int | None = None, details: object | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class TooManyVariantsError(StorefrontError):
    pass


class DuplicateVariantError(StorefrontError):
    pass


class SocialPublishError(CatalogSyncError):
    def __init__(self, message: str, refs: dict[str, str] | None = None) -> None:
        super().__init__(message)
        # Posts that went out before the failure; callers must keep them.
        self.refs = dict(refs or {})
