"""debrisfield Quickstart — load a small catalog and run a few frames."""

import logging
from datetime import timedelta

from debrisfield import Simulation, load_sources

logging.basicConfig(level=logging.INFO)

active_text = """
ISS (ZARYA)
1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993
2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596
CSS (TIANHE)
1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993
2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157018
""".strip()

debris_text = """
COSMOS 1408 DEB
1 51087U 82092HY  24045.40000000  .00013000  00000-0  73000-3 0  9999
2 51087  82.5600 120.3400 0050000 200.0000 160.0000 15.15000000 50000
""".strip()

# The host application normally reads these from disk or CelesTrak.
catalog = load_sources({"active": active_text, "cosmos-1408-debris": debris_text})
print(f"Loaded {len(catalog)} objects ({catalog.skipped} skipped)")

sim = Simulation(catalog, loaded_at=catalog["25544"].epoch)
start = catalog["25544"].epoch

for minutes in range(0, 30, 10):
    frame = sim.tick(start + timedelta(minutes=minutes), threshold=0.5)
    print(f"{frame.at:%H:%M} | {len(frame.positions)} objects")
    for pair in frame.sorted_collisions():
        print(f"   {pair.first_id} <-> {pair.second_id}: {pair.distance * 6371:.0f} km")
