# coopgov/ai/predictors.py
from .model_loader import get_category_model_and_vec


def classify_category(text: str) -> tuple[str, float]:
    """
    TF-IDF + Naive Bayes proposal category classifier.
    """
    nb, vec = get_category_model_and_vec()

    X = vec.transform([text.lower()])
    proba = nb.predict_proba(X)[0]
    idx = int(proba.argmax())
    label = nb.classes_[idx]
    conf = float(round(float(proba[idx]), 3))
    return str(label), conf
