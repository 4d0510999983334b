from worker.transform.content import ContentResult, ContentTransformer
from worker.transform.options import OptionTranslation, OptionTranslator

__all__ = ["ContentResult", "ContentTransformer", "OptionTranslation", "OptionTranslator"]
