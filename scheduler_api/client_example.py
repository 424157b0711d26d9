"""
Example client for the Scheduler Task API.

Demonstrates how a script or another service can drive the API the same
way the scheduler UI does.
"""

import requests
from typing import Dict, List, Optional


class SchedulerClient:
    """
    Client for the Scheduler Task API.

    Usage:
        client = SchedulerClient("http://localhost:3001", email="me@example.com")
        deliveries = client.list_deliveries()
        detail = client.get_delivery("DEL-001")
    """

    def __init__(self, api_url: str = "http://localhost:3001", email: Optional[str] = None):
        """
        Initialize API client.

        Args:
            api_url: Base URL of the API server
            email: Requester email sent with task and admin calls
        """
        self.api_url = api_url.rstrip('/')
        self.email = email
        self.session = requests.Session()

    def _request(self, method: str, endpoint: str, params: Dict = None, json: Dict = None):
        url = f"{self.api_url}{endpoint}"
        params = {k: v for k, v in (params or {}).items() if v is not None}
        response = self.session.request(method, url, params=params, json=json)
        response.raise_for_status()
        return response.json()

    def _get(self, endpoint: str, params: Dict = None):
        return self._request("GET", endpoint, params=params)

    def _with_email(self, params: Dict = None) -> Dict:
        return dict(params or {}, email=self.email)

    # ----------------------------------------------------------------
    # Health & Access
    # ----------------------------------------------------------------

    def health_check(self) -> Dict:
        return self._get("/")

    def is_admin(self, email: Optional[str] = None) -> bool:
        return self._get("/api/access", {"email": email or self.email})["isAdmin"]

    def refresh_admins(self) -> Dict:
        return self._request("POST", "/api/admin/refresh", params=self._with_email())

    # ----------------------------------------------------------------
    # Persons
    # ----------------------------------------------------------------

    def get_persons(self) -> List[str]:
        return self._get("/api/persons")

    def get_person_emails(self) -> Dict[str, str]:
        return self._get("/api/person-emails")

    def set_person_email(self, person: str, email: str) -> Dict:
        return self._request(
            "PUT", f"/api/person-emails/{requests.utils.quote(person, safe='')}",
            params=self._with_email(), json={"Email": email}
        )

    # ----------------------------------------------------------------
    # Tasks
    # ----------------------------------------------------------------

    def list_deliveries(self, limit: int = None, offset: int = 0, **filters) -> Dict[str, List[Dict]]:
        """
        Workflow headers visible to this client's email, grouped by delivery code.

        Filters: client, status, responsibility, from, to
        """
        params = self._with_email(dict(filters, limit=limit, offset=offset))
        return self._get("/api/data", params)

    def get_delivery(self, del_code: str) -> List[Dict]:
        """Rows of one workflow visible to this client's email."""
        grouped = self._get("/api/data", self._with_email({"delCode": del_code}))
        return grouped.get(del_code, [])

    def save_task(self, task: Dict, sliders: List[Dict]) -> Dict:
        """Insert or update a task with its slider allocations (day, duration, slot, personResponsible)."""
        return self._request("POST", "/api/post", json=dict(task, sliders=sliders))

    def update_task(self, key: int, **fields) -> Dict:
        return self._request("PUT", f"/api/data/{key}", json=fields)

    def delete_delivery(self, del_code: str) -> Dict:
        return self._request("DELETE", f"/api/data/{del_code}")

    def update_delivery_counts(self, del_code: str, planned: int = None, total: int = None) -> Dict:
        return self._request(
            "PUT", f"/api/delivery_counts/{del_code}",
            json={"newPlannedTasks": planned, "newTotalTasks": total}
        )

    # ----------------------------------------------------------------
    # Durations
    # ----------------------------------------------------------------

    def get_per_key_per_day(self, key: int = None) -> Dict:
        return self._get("/api/per-key-per-day", {"key": key})

    def get_per_person_per_day(self, person: str = None, start: str = None, end: str = None) -> Dict:
        return self._get("/api/per-person-per-day", {"person": person, "start": start, "end": end})

    # ----------------------------------------------------------------
    # Admin edits
    # ----------------------------------------------------------------

    def reassign_task(self, key: int, responsibility: str, emails: str = None) -> Dict:
        body = {"Responsibility": responsibility, "Emails": emails}
        return self._request("PUT", f"/api/admin/data/{key}/reassign", params=self._with_email(), json=body)

    def update_deadline(self, del_code: str, planned_delivery: str, planned_start: str = None) -> Dict:
        body = {"Planned_Delivery_Timestamp": planned_delivery, "Planned_Start_Timestamp": planned_start}
        return self._request("PUT", f"/api/admin/deadline/{del_code}", params=self._with_email(), json=body)

    def update_status(self, key: int, status: str) -> Dict:
        return self._request(
            "PUT", f"/api/admin/data/{key}/status",
            params=self._with_email(), json={"Current_Status": status}
        )


if __name__ == "__main__":
    client = SchedulerClient(email="systems@brightbraintech.com")

    print("Health:", client.health_check())
    print("Admin:", client.is_admin())

    deliveries = client.list_deliveries(limit=10)
    print(f"\n{len(deliveries)} deliveries")
    for code, rows in deliveries.items():
        header = rows[0]
        print(f"  {code}: {header.get('Short_Description')} ({header.get('Current_Status')})")

    persons = client.get_persons()
    print(f"\nPersons: {', '.join(persons)}")

    load = client.get_per_person_per_day()
    for person, summary in load.items():
        print(f"  {person}: {summary['totalDuration']:.0f} min over {len(summary['days'])} day(s)")
