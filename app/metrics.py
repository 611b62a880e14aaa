from prometheus_client import Counter

NDA_TRANSITIONS = Counter(
    "nda_transitions_total",
    "NDA state transitions by action and outcome",
    ["action", "outcome"],
)

NDA_NOTIFICATIONS = Counter(
    "nda_notifications_total",
    "NDA notification attempts by event and outcome",
    ["event", "outcome"],
)
