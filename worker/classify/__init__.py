from worker.classify.classifier import Category, CategoryClassifier, Classification

__all__ = ["Category", "CategoryClassifier", "Classification"]
