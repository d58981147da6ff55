import time

from nodelink import Nodelink, NetDriver, INVALID_NODE

def main():
    # Two nodes on one machine over UDP. Run as-is; both engines live in this process.
    common = {"transport": "datagram", "host_address": "127.0.0.1", "log_level": "DEBUG"}
    A = Nodelink({**common, "node_id": 0, "port": 5029,
                  "peer_list": [{"address": "127.0.0.1", "port": 5030, "node_id": 1}]},
                 configure_logging=True)
    B = Nodelink({**common, "node_id": 1, "port": 5030,
                  "peer_list": [{"address": "127.0.0.1", "port": 5029, "node_id": 0}]})

    a, b = NetDriver(A), NetDriver(B)
    try:
        status = a.send(b"ticcmd 0001", 11, 1)
        print("A -> B:", status)

        buf = bytearray(512)
        deadline = time.monotonic() + 2.0
        length, source = 0, INVALID_NODE
        while source == INVALID_NODE and time.monotonic() < deadline:
            length, source = b.receive(buf)
        print("B got:", bytes(buf[:length]), "from node", source)
        print("A stats:", A.stats())
    finally:
        A.shutdown()
        B.shutdown()

if __name__ == "__main__":
    main()
