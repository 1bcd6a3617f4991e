from .http import ApiClient, FormPayload, api_fetch, query_params

__all__ = ["ApiClient", "FormPayload", "api_fetch", "query_params"]
