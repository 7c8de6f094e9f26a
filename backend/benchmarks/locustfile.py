import os
import random
import uuid
from datetime import date, timedelta

from locust import HttpUser, task, between

# point at equipment created by an admin beforehand
EQUIPMENT_ID = os.getenv("BENCH_EQUIPMENT_ID")


class LabUser(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        payload = {"email": f"load-{uuid.uuid4().hex[:8]}@lab.com", "password": "password"}
        r = self.client.post("/api/auth/register", json=payload)
        if r.status_code != 200:
            r = self.client.post("/api/auth/login", json=payload)
        token = r.json().get("access_token")
        self.headers = {"Authorization": f"Bearer {token}"}

    @task(3)
    def list_equipment(self):
        self.client.get("/api/equipment/", headers=self.headers)

    @task(2)
    def list_lab_inventory(self):
        self.client.get("/api/inventory/lab/items", headers=self.headers)

    @task(1)
    def book_contended_slot(self):
        if not EQUIPMENT_ID:
            return
        hour = random.randint(8, 17)
        data = {
            "equipment_id": EQUIPMENT_ID,
            "booking_date": (date.today() + timedelta(days=random.randint(1, 3))).isoformat(),
            "start_time": f"{hour:02d}:00",
            "end_time": f"{hour:02d}:30",
        }
        with self.client.post("/api/bookings/", json=data, headers=self.headers, catch_response=True) as resp:
            # a taken slot is the expected outcome under contention
            if resp.status_code in (200, 409):
                resp.success()
