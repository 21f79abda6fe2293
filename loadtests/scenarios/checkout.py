"""Checkout load test scenarios.

``AddressBookJourney`` walks one shopper through the address book; it runs in
order and stops at the first failed step. ``CheckoutBrowsingUser`` fires the
read-heavy calls a checkout page makes while the shopper types.
"""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import (
    SEEDED_POSTAL_CODES,
    address_data,
    cart_items,
    random_postal_code,
    unique_user_id,
)
from loadtests.helpers.response import extract_error_detail


class AddressBookJourney(SequentialTaskSet):
    """Save -> Save duplicate -> Save second -> Promote -> List -> Delete."""

    def on_start(self):
        self.user_id = unique_user_id()
        self.first = address_data()
        self.address_ids = []

    @task
    def save_first_address(self):
        with self.client.post(
            f"/addresses/{self.user_id}",
            json=self.first,
            catch_response=True,
            name="POST /addresses/{user}",
        ) as resp:
            if resp.status_code == 201 and resp.json()["saved"]:
                self.address_ids.append(resp.json()["address_id"])
            else:
                resp.failure(f"Save failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def save_duplicate(self):
        with self.client.post(
            f"/addresses/{self.user_id}",
            json=self.first,
            catch_response=True,
            name="POST /addresses/{user} (duplicate)",
        ) as resp:
            if resp.status_code != 201 or resp.json()["saved"]:
                resp.failure("Duplicate address was stored twice")

    @task
    def save_second_address(self):
        with self.client.post(
            f"/addresses/{self.user_id}",
            json=address_data(),
            catch_response=True,
            name="POST /addresses/{user}",
        ) as resp:
            if resp.status_code == 201 and resp.json()["saved"]:
                self.address_ids.append(resp.json()["address_id"])

    @task
    def promote_latest(self):
        if len(self.address_ids) < 2:
            return
        with self.client.put(
            f"/addresses/{self.user_id}/{self.address_ids[-1]}/primary",
            catch_response=True,
            name="PUT /addresses/{user}/{id}/primary",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Promote failed: {resp.status_code} {extract_error_detail(resp)}")

    @task
    def list_addresses(self):
        with self.client.get(
            f"/addresses/{self.user_id}",
            catch_response=True,
            name="GET /addresses/{user}",
        ) as resp:
            primaries = [a for a in resp.json() if a["is_primary"]] if resp.status_code == 200 else []
            if len(primaries) > 1:
                resp.failure("More than one primary address")

    @task
    def delete_first(self):
        self.client.delete(
            f"/addresses/{self.user_id}/{self.address_ids[0]}",
            name="DELETE /addresses/{user}/{id}",
        )
        self.interrupt()


class AddressBookUser(HttpUser):
    tasks = [AddressBookJourney]
    wait_time = between(1, 3)


class CheckoutBrowsingUser(HttpUser):
    wait_time = between(0.5, 2)

    @task(5)
    def lookup_seeded_postal_code(self):
        code = SEEDED_POSTAL_CODES[hash(self) % len(SEEDED_POSTAL_CODES)]
        self.client.get(f"/postal-codes/{code}", name="GET /postal-codes/{code}")

    @task(2)
    def lookup_unknown_postal_code(self):
        with self.client.get(
            f"/postal-codes/{random_postal_code()}",
            catch_response=True,
            name="GET /postal-codes/{code} (miss)",
        ) as resp:
            if resp.status_code in (200, 404):
                resp.success()

    @task(3)
    def validate_coupon(self):
        self.client.post(
            "/coupons/validate",
            json={"code": "WELCOME10", "items": cart_items()},
            name="POST /coupons/validate",
        )
