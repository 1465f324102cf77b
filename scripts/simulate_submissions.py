# scripts/simulate_submissions.py
import random
import sys
import time

import requests

BASE_URL = "http://localhost:8000"

VENTURES = [
    ("member-owned grocery", "procurement"),
    ("solar microgrid for the community center", "infrastructure"),
    ("electric delivery van for local merchants", "transport"),
    ("UC cashback for buying from member businesses", "wallet_incentive"),
    ("bakery cooperative buying equipment", "business_funding"),
    ("neighborhood cafe with a lifestyle brand", "business_funding"),
]


def generate_text():
    venture, _ = random.choice(VENTURES)
    amount = random.choice([15_000, 40_000, 75_000, 150_000, 400_000])
    local = random.choice([40, 55, 70, 85])
    jobs = random.randint(0, 20)
    months = random.choice([6, 12, 18, 36])
    parts = [f"We propose a {venture}. We request ${amount:,}."]
    if random.random() > 0.2:
        parts.append(f"Spending follows a {local}/{100 - local} local/national split.")
    if random.random() > 0.3:
        parts.append(f"It will create {jobs} local jobs within {months} months.")
    if random.random() > 0.5:
        parts.append(f"It should keep ${amount // 5:,} a year circulating among members.")
    return " ".join(parts)


def run_simulation(n=25, coop_id=None):
    print(f"Submitting {n} simulated proposals...")
    tally = {}

    for i in range(n):
        payload = {
            "text": generate_text(),
            "proposer": {"wallet": f"0xsim{i:04d}", "role": random.choice(["member", "merchant"])},
        }
        if coop_id:
            payload["coopId"] = coop_id

        try:
            res = requests.post(f"{BASE_URL}/proposals/", json=payload, timeout=30)
        except requests.RequestException as e:
            print(f"Connection Error: {e}")
            break

        if res.status_code == 201:
            data = res.json()
            tally[data["decision"]] = tally.get(data["decision"], 0) + 1
            blocking = [m["field"] for m in data["missing_data"] if m["blocking"]]
            print(
                f"[{i+1}/{n}] {data['id']} | {data['decision']:<7} | {data['status']:<7} "
                f"| composite {data['goalScores']['composite']:.3f}"
                + (f" | needs {', '.join(blocking)}" if blocking else "")
            )
        else:
            print(f"[{i+1}/{n}] Error: {res.status_code} {res.text[:120]}")

        time.sleep(0.05)

    print(f"\nDone. Decisions: {tally}")


if __name__ == "__main__":
    try:
        requests.get(f"{BASE_URL}/", timeout=5)
    except requests.RequestException:
        print("Server not running!")
        sys.exit(1)

    run_simulation(coop_id=sys.argv[1] if len(sys.argv) > 1 else None)
