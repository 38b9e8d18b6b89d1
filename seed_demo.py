# seed_demo.py
import os

import requests

BASE_URL = os.getenv("LENDING_BASE_URL", "http://localhost:3000")

USERS = [
    "Alice Example",
    "Bob Reader",
    "Carol Bookworm",
]

BOOKS = [
    "Dune",
    "Clean Code",
    "The Pragmatic Programmer",
    "Designing Data-Intensive Applications",
    "Introduction to Algorithms",
]

# (user index, book index, score on return or None to leave it borrowed)
LOANS = [
    (0, 0, 4),
    (1, 1, 5),
    (1, 2, None),
    (2, 0, 3),
]


def check_service(url):
    """Hit /health and return True/False."""
    health_url = f"{url.rstrip('/')}/health"
    try:
        r = requests.get(health_url, timeout=3)
        print(f"[CHECK] {health_url} -> {r.status_code}")
        return r.ok
    except Exception as e:
        print(f"[ERROR] lending service not reachable at {health_url}: {e}")
        return False


def create_all(kind, names):
    print(f"\n== Creating {kind} ==")
    ids = []
    for name in names:
        try:
            resp = requests.post(f"{BASE_URL}/{kind}", json={"name": name}, timeout=5)
            print(f"  {name} -> {resp.status_code}")
            if resp.ok:
                ids.append(resp.json()["id"])
            else:
                print(f"      Body: {resp.text.strip()}")
        except Exception as e:
            print(f"  {name} -> FAILED: {e}")
    return ids


def seed_loans(user_ids, book_ids):
    print("\n== Borrowing and returning ==")
    for u, b, score in LOANS:
        if u >= len(user_ids) or b >= len(book_ids):
            continue
        user_id, book_id = user_ids[u], book_ids[b]

        resp = requests.post(f"{BASE_URL}/users/{user_id}/borrow/{book_id}", timeout=5)
        print(f"  user {user_id} borrow book {book_id} -> {resp.status_code}")
        if not resp.ok or score is None:
            continue

        resp = requests.post(
            f"{BASE_URL}/users/{user_id}/return/{book_id}",
            json={"score": score},
            timeout=5,
        )
        print(f"  user {user_id} return book {book_id} ({score}) -> {resp.status_code}")


def main():
    print("Checking lending service...")
    if not check_service(BASE_URL):
        print(f"\nLending service is not reachable. Make sure it is running at {BASE_URL}.")
        return

    user_ids = create_all("users", USERS)
    book_ids = create_all("books", BOOKS)
    seed_loans(user_ids, book_ids)

    print("\nDone.")
    print("Try hitting:")
    print(f"  {BASE_URL}/books")
    print(f"  {BASE_URL}/users/{user_ids[0] if user_ids else 1}")


if __name__ == "__main__":
    main()
