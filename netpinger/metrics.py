"""Prometheus metrics for the pinger."""

from prometheus_client import Counter, Gauge, Info

from netpinger.version import SERVICE_NAME, __version__

# Application info
app_info = Info("netpinger", "Application information")
app_info.info({
    "version": __version__,
    "service": SERVICE_NAME,
})

# Round metrics
rounds_total = Counter(
    "netpinger_rounds_total",
    "Total number of completed probe rounds",
)

probes_sent_total = Counter(
    "netpinger_probes_sent_total",
    "Total number of echo requests written to the socket",
)

send_failures_total = Counter(
    "netpinger_send_failures_total",
    "Total number of echo requests that could not be sent",
    ["address"],
)

# Reply metrics
replies_matched_total = Counter(
    "netpinger_replies_matched_total",
    "Echo replies credited to a host in the current round",
)

replies_discarded_total = Counter(
    "netpinger_replies_discarded_total",
    "Echo replies ignored by the round loop",
    ["reason"],
)

datagrams_dropped_total = Counter(
    "netpinger_datagrams_dropped_total",
    "Datagrams dropped by the transport before reaching the round loop",
    ["reason"],
)

probe_timeouts_total = Counter(
    "netpinger_probe_timeouts_total",
    "Echo requests left unanswered at the round deadline",
)

# Host and group state
host_up = Gauge(
    "netpinger_host_up",
    "Debounced host state (1=up, 0=down)",
    ["address"],
)

hosts_up = Gauge(
    "netpinger_hosts_up",
    "Number of hosts currently considered up",
)

group_alive = Gauge(
    "netpinger_group_alive",
    "Group verdict (1=alive, 0=dead)",
)

host_transitions_total = Counter(
    "netpinger_host_transitions_total",
    "Total number of host state transitions",
    ["address", "state"],
)

group_transitions_total = Counter(
    "netpinger_group_transitions_total",
    "Total number of group verdict transitions",
    ["verdict"],
)

# Notification metrics
notifications_sent_total = Counter(
    "netpinger_notifications_sent_total",
    "Total number of actions executed successfully",
    ["channel", "type"],
)

notifications_failed_total = Counter(
    "netpinger_notifications_failed_total",
    "Total number of failed action attempts",
    ["channel", "type"],
)
