from .adapter import OdmHandle, RetryingModel, collection_name_for, ensure_valid_model_name

__all__ = ["OdmHandle", "RetryingModel", "collection_name_for", "ensure_valid_model_name"]
