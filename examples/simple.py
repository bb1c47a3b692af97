#!/usr/bin/env python3
"""Submit a few measurements.

Set your token first:
    export APPOPTICS_TOKEN=...

Then run:
    python examples/simple.py
"""

import logging

import appoptics_metrics
from appoptics_metrics import Client


def main():
    logging.basicConfig(level=logging.INFO)

    # send a measurement of 54 for 'cpu' with the default client
    appoptics_metrics.submit(cpu=54)

    # submit multiple metrics at once
    appoptics_metrics.submit(cpu=63, memory=213)

    # submit a metric with a custom source
    appoptics_metrics.submit(cpu={"source": "myapp", "value": 75})

    # when sending many metrics, queue them and submit in batches
    client = Client()
    queue = client.new_queue(tags={"region": "us-east-1"})

    queue.add({"disk.free": 1223121})
    queue.add(memory=2321)
    queue.add(cpu={"source": "myapp", "value": 52, "tags": {"host": "web-1"}})

    if not queue.submit():
        for batch in queue.failed_batches:
            print(f"failed to send {len(batch.entries)} measurements: {batch.error}")


if __name__ == "__main__":
    main()
