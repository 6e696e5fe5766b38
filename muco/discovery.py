"""Finding and announcing services on the local network with multicast DNS."""

from __future__ import annotations

import ipaddress
import socket
import struct
import threading
import time

import dns.exception
import dns.flags
import dns.message
import dns.name
import dns.rdata
import dns.rdatatype
import dns.rrset

MDNS_GROUP = "224.0.0.251"
MDNS_PORT = 5353
QUERY_INTERVAL = 1.0
SERVICE_TTL = 4500
HOST_TTL = 120
_RECV_SIZE = 9000
_POLL_TIMEOUT = 0.5


def service_type_for(instance_name: str) -> str:
    """The DNS-SD service type under which ``instance_name`` is announced."""
    return f"_{instance_name}._tcp.local."


SERVER_SERVICE_NAME = "muco-server"
SERVER_SERVICE_TYPE = service_type_for(SERVER_SERVICE_NAME)


def local_ip():
    """The address of the interface used to reach other networks."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        # Connecting a UDP socket sends nothing; it only picks a route.
        sock.connect(("10.255.255.255", 1))
        return ipaddress.ip_address(sock.getsockname()[0])


def _multicast_socket() -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if hasattr(socket, "SO_REUSEPORT"):
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except OSError:
                pass
        sock.bind(("", MDNS_PORT))
        membership = struct.pack("4s4s", socket.inet_aton(MDNS_GROUP), socket.inet_aton("0.0.0.0"))
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 255)
        sock.settimeout(_POLL_TIMEOUT)
    except OSError:
        sock.close()
        raise
    return sock


def _parse_packet(packet):
    try:
        return dns.message.from_wire(bytes(packet))
    except (dns.exception.DNSException, ValueError, IndexError, struct.error):
        return None


class ServiceAnnouncer:
    """Answers multicast DNS queries for one service instance."""

    def __init__(self, ip, port, instance_name):
        self.ip = ipaddress.ip_address(str(ip))
        self.port = int(port)
        self.instance_name = instance_name
        self.service_type = service_type_for(instance_name)
        self._service = dns.name.from_text(self.service_type)
        self._instance = dns.name.from_text(f"{instance_name}.{self.service_type}")
        self._host = dns.name.from_text(f"{self.ip}.local.")
        self._sock: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    def response(self) -> bytes:
        """The DNS response packet that describes the service."""
        message = dns.message.Message(id=0)
        message.flags = dns.flags.QR | dns.flags.AA
        address_type = "A" if self.ip.version == 4 else "AAAA"
        message.answer.append(
            dns.rrset.from_text(self._service, SERVICE_TTL, "IN", "PTR", self._instance.to_text())
        )
        message.additional.extend(
            [
                dns.rrset.from_text(
                    self._instance, HOST_TTL, "IN", "SRV", f"0 0 {self.port} {self._host.to_text()}"
                ),
                dns.rrset.from_text(self._instance, SERVICE_TTL, "IN", "TXT", '"property_1=test"'),
                dns.rrset.from_text(self._host, HOST_TTL, "IN", address_type, str(self.ip)),
            ]
        )
        return message.to_wire()

    def _is_query_for_us(self, packet) -> bool:
        message = _parse_packet(packet)
        if message is None or message.flags & dns.flags.QR:
            return False
        return any(q.name in (self._service, self._instance) for q in message.question)

    def _send_response(self) -> None:
        try:
            self._sock.sendto(self.response(), (MDNS_GROUP, MDNS_PORT))
        except OSError as err:
            print(f"failed to send service announcement: {err}")

    def _serve(self) -> None:
        self._send_response()
        while not self._stop.is_set():
            try:
                packet, _ = self._sock.recvfrom(_RECV_SIZE)
            except socket.timeout:
                continue
            except OSError:
                break
            if self._is_query_for_us(packet):
                self._send_response()

    def start(self) -> ServiceAnnouncer:
        """Announce the service and answer queries in a background thread."""
        if self._thread is not None:
            return self
        self._sock = _multicast_socket()
        self._stop.clear()
        self._thread = threading.Thread(target=self._serve, name="mdns-announcer", daemon=True)
        self._thread.start()
        return self

    def close(self) -> None:
        """Stop answering queries."""
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join()
        self._sock.close()
        self._thread = None
        self._sock = None

    def __enter__(self) -> ServiceAnnouncer:
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()


def register_service(ip, port, instance_name) -> ServiceAnnouncer:
    """Start announcing ``instance_name`` at ``ip``:``port``."""
    return ServiceAnnouncer(ip, port, instance_name).start()


def _srv_fields(rdata):
    if isinstance(rdata, dns.rdata.GenericRdata):
        # Records carrying the cache-flush bit arrive as generic data.
        return struct.unpack_from(">H", rdata.data, 4)[0], None
    return rdata.port, rdata.target


def _address_of(rdata):
    if isinstance(rdata, dns.rdata.GenericRdata):
        return ipaddress.ip_address(rdata.data)
    return ipaddress.ip_address(rdata.address)


def parse_service_address(packet, service_type=SERVER_SERVICE_TYPE) -> str | None:
    """Extract ``"address:port"`` of a ``service_type`` instance from a response."""
    message = _parse_packet(packet)
    if message is None or not message.flags & dns.flags.QR:
        return None
    try:
        service = dns.name.from_text(service_type)
    except dns.exception.DNSException:
        return None
    records = [*message.answer, *message.additional]

    port = target = None
    for rrset in records:
        if (
            rrset.rdtype == dns.rdatatype.SRV
            and rrset.ttl > 0
            and rrset.name != service
            and rrset.name.is_subdomain(service)
        ):
            try:
                port, target = _srv_fields(next(iter(rrset)))
            except (struct.error, StopIteration):
                continue
            break
    if port is None:
        return None

    addresses = []
    for rrset in records:
        if rrset.rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA) and rrset.ttl > 0:
            for rdata in rrset:
                try:
                    addresses.append((rrset.name, _address_of(rdata)))
                except ValueError:
                    continue
    if not addresses:
        return None
    chosen = next((addr for name, addr in addresses if name == target), addresses[0][1])
    return f"{chosen}:{port}"


def _build_query(service_type: str) -> bytes:
    query = dns.message.make_query(service_type, dns.rdatatype.PTR)
    query.id = 0
    query.flags = 0
    return query.to_wire()


def find_server(service_type=SERVER_SERVICE_TYPE, timeout=None) -> str | None:
    """Browse for ``service_type`` and return the first ``"address:port"`` found.

    Waits forever when ``timeout`` is None, otherwise returns None once
    ``timeout`` seconds pass without an answer.
    """
    query = _build_query(service_type)
    deadline = None if timeout is None else time.monotonic() + timeout
    with _multicast_socket() as sock:
        next_query = 0.0
        while deadline is None or time.monotonic() < deadline:
            now = time.monotonic()
            if now >= next_query:
                sock.sendto(query, (MDNS_GROUP, MDNS_PORT))
                next_query = now + QUERY_INTERVAL
            try:
                packet, _ = sock.recvfrom(_RECV_SIZE)
            except socket.timeout:
                continue
            address = parse_service_address(packet, service_type)
            if address is not None:
                return address
    return None