# backend/app/metrics.py
from prometheus_client import Counter, Histogram

# === Core metrics (definitions ONLY here) ===
logins_total = Counter(
    "logins_total", "Login attempts", ["role", "outcome"]
)

signups_total = Counter(
    "signups_total", "Accounts created", ["role"]
)

moderation_decisions_total = Counter(
    "moderation_decisions_total", "Administrator moderation decisions", ["kind", "decision"]
)

image_uploads_total = Counter(
    "image_uploads_total", "Images relayed to the image host", ["outcome"]
)

activity_entries_total = Counter(
    "activity_entries_total", "Activity log outcomes", ["outcome"]
)

upload_latency_seconds = Histogram(
    "image_upload_latency_seconds", "Image host round-trip latency"
)

def init_metrics_zero():
    # create label combos at 0 so Grafana never sees “no data”
    for role in ("student", "admin"):
        signups_total.labels(role=role).inc(0)
        for outcome in ("success", "failure"):
            logins_total.labels(role=role, outcome=outcome).inc(0)
    for kind in ("student", "project"):
        for decision in ("approved", "rejected", "deleted"):
            moderation_decisions_total.labels(kind=kind, decision=decision).inc(0)
    for outcome in ("success", "failure"):
        image_uploads_total.labels(outcome=outcome).inc(0)
    for outcome in ("written", "suppressed", "failed"):
        activity_entries_total.labels(outcome=outcome).inc(0)
