# Dashboard metrics
from typing import Iterable, List

import pandas as pd

from portal.models.equipment import Equipment
from portal.services.status_machine import STATUS_LABELS

TYPE_LABELS = {"reservation": "Reserva", "purchase": "Compra", "support": "Suporte"}


def requests_frame(requests: Iterable) -> pd.DataFrame:
    """Flattens requests into one row each: id, type, status, user, createdAt."""
    rows = [{
        "id": r.id,
        "type": r.type,
        "status": r.status,
        "userName": r.user_name,
        "userEmail": r.user_email,
        "createdAt": r.created_at,
    } for r in requests]
    df = pd.DataFrame(rows, columns=["id", "type", "status", "userName", "userEmail", "createdAt"])
    if not df.empty:
        df['createdAt'] = pd.to_datetime(df['createdAt'], utc=True)
    return df


def status_distribution(requests: Iterable) -> pd.DataFrame:
    df = requests_frame(requests)
    if df.empty:
        return pd.DataFrame(columns=["status", "label", "count"])
    counts = df['status'].value_counts().rename_axis('status').reset_index(name='count')
    counts['label'] = counts['status'].map(lambda s: STATUS_LABELS.get(s, s))
    return counts[["status", "label", "count"]]


def requests_by_type(requests: Iterable) -> pd.DataFrame:
    df = requests_frame(requests)
    if df.empty:
        return pd.DataFrame(columns=["type", "label", "count"])
    counts = df['type'].value_counts().rename_axis('type').reset_index(name='count')
    counts['label'] = counts['type'].map(lambda t: TYPE_LABELS.get(t, t))
    return counts[["type", "label", "count"]]


def equipment_usage(reservations: Iterable, equipment: List[Equipment]) -> pd.DataFrame:
    """Reservation count per equipment, most booked first; canceled bookings are ignored."""
    names = {e.id: e.name for e in equipment}
    rows = [{"equipmentId": eid, "name": names.get(eid, "Equipamento")}
            for r in reservations if r.type == "reservation" and r.status != "canceled"
            for eid in r.equipment_ids]
    if not rows:
        return pd.DataFrame(columns=["equipmentId", "name", "count"])
    df = pd.DataFrame(rows)
    usage = df.groupby(["equipmentId", "name"]).size().reset_index(name="count")
    return usage.sort_values(["count", "name"], ascending=[False, True]).reset_index(drop=True)


def top_requesters(requests: Iterable, n: int = 5) -> pd.DataFrame:
    df = requests_frame(requests)
    if df.empty:
        return pd.DataFrame(columns=["userEmail", "userName", "count"])
    top = df.groupby(["userEmail", "userName"]).size().reset_index(name="count")
    return top.sort_values(["count", "userEmail"], ascending=[False, True]).head(n).reset_index(drop=True)
