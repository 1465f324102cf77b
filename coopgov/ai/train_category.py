# coopgov/ai/train_category.py
import csv, pickle, pathlib
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.naive_bayes import MultinomialNB

ROOT = pathlib.Path(__file__).resolve().parents[0]
DATA = ROOT / "data"
MODELS = ROOT / "models"


def load_examples(path=DATA / "categories.csv"):
    texts, labels = [], []
    with open(path, encoding="utf-8", newline="") as f:
        for row in csv.DictReader(f):
            texts.append(row["text"]); labels.append(row["label"])
    return texts, labels


def train_category_model(path=DATA / "categories.csv"):
    texts, labels = load_examples(path)
    vec = TfidfVectorizer(ngram_range=(1, 2), min_df=1, sublinear_tf=True)
    X = vec.fit_transform(texts)
    clf = MultinomialNB(alpha=0.5).fit(X, labels)
    return clf, vec


def main():
    MODELS.mkdir(parents=True, exist_ok=True)
    clf, vec = train_category_model()
    with open(MODELS / "category_vectorizer.pkl", "wb") as f: pickle.dump(vec, f)
    with open(MODELS / "category_nb.pkl", "wb") as f: pickle.dump(clf, f)
    print("category model + vectorizer saved")


if __name__ == "__main__":
    main()
