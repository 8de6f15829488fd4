"""Interleaving Harness -- seeded stress runs and real threads.

Runs many randomized interleavings against the invariant battery, then
protects a shared counter with ``TicketLock`` across OS threads.
"""

import threading

from ticket_lock import HarnessConfig, InterleavingHarness, PriorityDriver, TicketLock

# =============================================================
# Randomized interleavings
# =============================================================
print("=== Random Driver ===")

config = HarnessConfig(participants=4, trials=200, max_steps=300, seed=2024)
report = InterleavingHarness(config).run()
for key, value in report.summary().items():
    print(f"  {key}: {value}")

print("\n=== Priority Driver ===")

harness = InterleavingHarness(
    HarnessConfig(participants=4, trials=50, max_steps=300, seed=7),
    driver_factory=lambda protocol, rng: PriorityDriver(protocol),
)
print(f"  ok: {harness.run().ok}")

# =============================================================
# Real threads
# =============================================================
print("\n=== TicketLock ===")

lock = TicketLock()
counter = 0


def work(rounds: int) -> None:
    global counter
    for _ in range(rounds):
        with lock:
            counter += 1


threads = [threading.Thread(target=work, args=(1000,)) for _ in range(8)]
for t in threads:
    t.start()
for t in threads:
    t.join()

print(f"  counter: {counter} (expected {8 * 1000})")
print(f"  {lock}")

print("\nDone.")
