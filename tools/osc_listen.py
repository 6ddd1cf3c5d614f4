import sys
import time

from oscdmx.monitor import DmxMonitor

def dump(event):
    print(f"/dmx/universe/{event.universe} channel={event.channel} level={event.level}")

host = sys.argv[1] if len(sys.argv) > 1 else "127.0.0.1"
port = int(sys.argv[2]) if len(sys.argv) > 2 else 7770

# point oscdmx at this address (--host/--port) to see what a fade sends
with DmxMonitor(host, port, on_level=dump) as mon:
    print(f"listening on {host}:{mon.server_address[1]} ...")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
