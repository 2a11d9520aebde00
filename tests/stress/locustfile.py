"""
Gestão Pro Load Testing with Locust

Run with:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5000

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5000 \
           --users 10 --spawn-rate 2 --run-time 60s --headless

Every simulated user registers its own account, seeds a few products and
then mixes reads with concurrent sales against the same products. The
summary fails if any product ends with negative stock or if the stock left
does not match the quantity sold.

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- Error rate < 1% (409 insufficient stock is an expected outcome, not an error)
"""

import random
import time
import uuid
from typing import Dict, List, Optional

from locust import HttpUser, task, between, events


PASSWORD = "loadtest1"
SEED_STOCK = 50


class MetricsCollector:
    """Collect and report metrics."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}
        self.stock_violations: List[str] = []

    def record(self, name: str, response_time: float, success: bool):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p95_idx = int(count * 0.95)
            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


class ShopOwner(HttpUser):
    """Registers, seeds a small catalog, then reads and sells."""
    wait_time = between(0.2, 1)

    token: Optional[str] = None
    product_ids: List[int]
    sold: Dict[int, float]

    def on_start(self):
        self.product_ids = []
        self.sold = {}
        email = f"load-{uuid.uuid4().hex[:12]}@gestao.test"
        response = self.client.post(
            "/api/auth/register",
            json={"email": email, "password": PASSWORD, "full_name": "Load Test"},
            name="auth/register",
        )
        if response.status_code != 201:
            return
        self.token = response.json()["access_token"]

        for i in range(3):
            response = self.client.post(
                "/api/products",
                json={
                    "name": f"Produto {i}",
                    "cost_price": 2.5,
                    "sale_price": 5.0,
                    "stock_quantity": SEED_STOCK,
                },
                headers=self.get_headers(),
                name="products/create",
            )
            if response.status_code == 201:
                self.product_ids.append(response.json()["product"]["id"])

    def on_stop(self):
        if not self.token:
            return
        for product_id in self.product_ids:
            response = self.client.get(
                f"/api/products/{product_id}",
                headers=self.get_headers(),
                name="products/get",
            )
            if response.status_code != 200:
                continue
            stock = response.json()["product"]["stock_quantity"]
            expected = SEED_STOCK - self.sold.get(product_id, 0)
            if stock < 0 or abs(stock - expected) > 1e-6:
                metrics.stock_violations.append(
                    f"product {product_id}: stock={stock} expected={expected}"
                )

    def get_headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @task(4)
    def list_products(self):
        start = time.time()
        response = self.client.get("/api/products", headers=self.get_headers(), name="products/list")
        metrics.record("products/list", (time.time() - start) * 1000, response.status_code == 200)

    @task(2)
    def dashboard(self):
        start = time.time()
        response = self.client.get("/api/dashboard/summary", headers=self.get_headers(), name="dashboard/summary")
        metrics.record("dashboard/summary", (time.time() - start) * 1000, response.status_code == 200)

    @task(5)
    def create_sale(self):
        if not self.product_ids:
            return
        product_id = random.choice(self.product_ids)
        quantity = random.randint(1, 3)

        start = time.time()
        response = self.client.post(
            "/api/sales",
            json={
                "payment_method": random.choice(["dinheiro", "pix", "cartao_debito"]),
                "items": [{"product_id": product_id, "quantity": quantity, "unit_price": 5.0}],
            },
            headers=self.get_headers(),
            name="sales/create",
        )
        ok = response.status_code in (201, 409)
        metrics.record("sales/create", (time.time() - start) * 1000, ok)
        if response.status_code == 201:
            self.sold[product_id] = self.sold.get(product_id, 0) + quantity

    @task(1)
    def health_check(self):
        start = time.time()
        response = self.client.get("/health", name="system/health")
        metrics.record("system/health", (time.time() - start) * 1000, response.status_code == 200)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    all_pass = True
    for name, stats in sorted(summary.items()):
        p95_threshold = 1000 if "create" in name else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1
        if not passed:
            all_pass = False
        status = "PASS" if passed else "FAIL"
        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    print("-" * 80)
    if metrics.stock_violations:
        all_pass = False
        print("Stock mismatches:")
        for line in metrics.stock_violations:
            print(f"  - {line}")

    print("\n[PASS] All endpoints within thresholds" if all_pass else "\n[FAIL] See above")
    print("=" * 80)
