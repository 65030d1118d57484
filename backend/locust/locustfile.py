"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double-booking
  locust -f locustfile.py --tags throughput   # Test log cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import random
from datetime import date, timedelta

from locust import HttpUser, between, events, tag, task

BOOKINGS_URL = "/api/v1/event-bookings/"

# Shared state
CONTESTED_BOOKING_IDS = []
BOOKING_IDS = []

# Every concurrency user fights over the same three days
CONTESTED_START = date.today() + timedelta(days=400)
CONTESTED_END = CONTESTED_START + timedelta(days=2)


def random_customer():
    return f"Load Tester {random.randint(10000, 99999)}"


def booking_payload(start: date, end: date) -> dict:
    customer = random_customer()
    return {
        "customer_name": customer,
        "email": f"{customer.split()[-1]}@load.test",
        "contact_number": "555-0100",
        "event_type": random.choice(["Wedding", "Conference", "Birthday"]),
        "event_start_date": start.isoformat(),
        "event_end_date": end.isoformat(),
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: contested dates {CONTESTED_START} to {CONTESTED_END}")
    print("=" * 60)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    print("\nAfter test, verify no two Confirmed bookings overlap:")
    print(
        "  SELECT a.id, b.id FROM event_bookings a JOIN event_bookings b ON a.id < b.id\n"
        "  WHERE a.status = 'Confirmed' AND b.status = 'Confirmed'\n"
        "  AND a.event_start_date <= b.event_end_date AND b.event_start_date <= a.event_end_date;"
    )
    print("Should return 0 rows.\n")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many pending requests, one venue

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    Each user files a request for the contested dates, then everyone races
    to confirm a random one. Exactly one confirm may win; the rest must get
    409 (conflict or contention) and the losers are auto-declined.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        resp = self.client.post(BOOKINGS_URL, json=booking_payload(CONTESTED_START, CONTESTED_END),
                                name="/event-bookings/ [contested]")
        if resp.status_code == 201:
            CONTESTED_BOOKING_IDS.append(resp.json()["booking_id"])

    @tag("concurrency")
    @task
    def confirm_contested(self):
        """All users fight for the same dates."""
        if not CONTESTED_BOOKING_IDS:
            return

        booking_id = random.choice(CONTESTED_BOOKING_IDS)
        with self.client.put(f"{BOOKINGS_URL}{booking_id}/status",
            json={"status": "Confirmed", "confirmed_by": "locust"},
            name="/event-bookings/{id}/status [confirm]",
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: dates taken, already cancelled, or lost the race
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - confirmation log cache

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_confirmation_log(self):
        self.client.get(f"{BOOKINGS_URL}logs", name="/event-bookings/logs [cached]")

    @tag("throughput", "read")
    @task(3)
    def list_bookings(self):
        self.client.get(BOOKINGS_URL, name="/event-bookings/")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_booking(self):
        with self.client.put(f"{BOOKINGS_URL}999999/status", json={"status": "Confirmed"},
                             name="/event-bookings/{id}/status [missing]", catch_response=True) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def non_numeric_id(self):
        with self.client.get(f"{BOOKINGS_URL}abc", name="/event-bookings/{id} [bad id]",
                             catch_response=True) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def invalid_status(self):
        with self.client.put(f"{BOOKINGS_URL}1/status", json={"status": "Approved"},
                             name="/event-bookings/{id}/status [bad status]", catch_response=True) as resp:
            self._expect(resp, [400, 404])

    @tag("edge")
    @task
    def missing_fields(self):
        with self.client.post(BOOKINGS_URL, json={"customer_name": "Nobody"},
                              name="/event-bookings/ [missing fields]", catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def reversed_dates(self):
        start = date.today() + timedelta(days=500)
        with self.client.post(BOOKINGS_URL, json=booking_payload(start, start - timedelta(days=3)),
                              name="/event-bookings/ [reversed]", catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(BOOKINGS_URL, data="not json at all",
                              headers={"Content-Type": "application/json"},
                              name="/event-bookings/ [garbage]", catch_response=True) as resp:
            self._expect(resp, [400, 422])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing the bookings and log
      - Some new requests over random dates
      - Occasional confirm or decline
    """
    wait_time = between(1, 3)

    @task(50)
    def browse_bookings(self):
        resp = self.client.get(BOOKINGS_URL)
        if resp.status_code == 200:
            for booking in resp.json().get("data", []):
                if booking["id"] not in BOOKING_IDS:
                    BOOKING_IDS.append(booking["id"])

    @task(20)
    def view_log(self):
        self.client.get(f"{BOOKINGS_URL}logs", name="/event-bookings/logs")

    @task(10)
    def request_dates(self):
        start = date.today() + timedelta(days=random.randint(1, 365))
        end = start + timedelta(days=random.randint(0, 3))
        with self.client.post(BOOKINGS_URL, json=booking_payload(start, end), catch_response=True) as resp:
            if resp.status_code == 201:
                BOOKING_IDS.append(resp.json()["booking_id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: dates already confirmed

    @task(3)
    def decide(self):
        if not BOOKING_IDS:
            return
        booking_id = random.choice(BOOKING_IDS)
        status = random.choice(["Confirmed", "Cancelled"])
        with self.client.put(f"{BOOKINGS_URL}{booking_id}/status", json={"status": status},
                             name="/event-bookings/{id}/status", catch_response=True) as resp:
            if resp.status_code in [200, 409]:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
