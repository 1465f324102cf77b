# coopgov/ai/model_loader.py
import pickle
from functools import lru_cache
from pathlib import Path
from typing import Any

from .train_category import train_category_model


BASE_DIR = Path(__file__).resolve().parent
MODELS_DIR = BASE_DIR / "models"


class ModelFileMissing(RuntimeError):
    pass


def _load_pickle(path: Path) -> Any:
    if not path.exists():
        raise ModelFileMissing(f"Model file missing: {path}")
    with path.open("rb") as f:
        return pickle.load(f)


@lru_cache(maxsize=1)
def get_category_model_and_vec() -> tuple[Any, Any]:
    """
    Prefer the pickled model from train_category.py; fall back to fitting
    the bundled seed data in memory (small enough to train on import).
    """
    try:
        nb = _load_pickle(MODELS_DIR / "category_nb.pkl")
        vec = _load_pickle(MODELS_DIR / "category_vectorizer.pkl")
    except ModelFileMissing:
        nb, vec = train_category_model()
    return nb, vec
