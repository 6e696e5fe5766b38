# muco

Tools for running multi-user headset sessions on a local network:

- **a relay server** that passes binary messages between connected clients
  and keeps a small shared data model;
- **a manager** that tracks headsets, pushes settings to them and serves a
  live status feed over a websocket;
- **a photo server** that stores uploaded photos;
- **a client emulator** that inspects and replays recorded relay traffic.

The relay and photo servers announce themselves over multicast DNS
(`muco.discovery`), so the manager and the emulator find the relay without
any configuration.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Relay server

```
muco-server
muco-server log
```

Listens on TCP port 1302 on all interfaces and announces itself as
`_muco-server._tcp.local.`. Each client first sends the network version
bytes `0 0 6` followed by its device id as a little-endian `u32`; clients
with a different version are rejected. The server answers with a `Hello`
message carrying the client's session id and the current shared model.

Every message after that is framed as a little-endian `u32` length followed
by the payload. Clients can address messages to everyone, to everyone else
or to one session, kick a session, announce themselves as a player, set
shared data and claim ownership of a data slot. Once a slot is claimed, only
its owner may change it. When a client leaves, the others receive a
`ClientDisconnected` message.

With the argument `log`, a folder named `log_<start seconds>` is created and
every message a client sends is written to `<session id>.muco_log` in it,
each prefixed with the milliseconds since server start as a little-endian
`u32`.

## Manager

```
muco-manager
```

Finds the relay server over mDNS, registers with it as a manager (device id
888), reconnects when the connection drops, and serves HTTP on port 8080:

- `GET /health` answers `200 OK`;
- `/ws` is a websocket that receives the full status as JSON whenever it
  changes (checked every half second), and accepts JSON commands such as
  `"Ping"`, `{"SetName": [1234, "Front desk"]}`, `{"StartSession": 1234}`,
  `{"SetEnvironment": [1234, "NoEnvironment"]}` or `{"Kick": 1234}`.
  Commands without arguments are bare strings; commands with one argument
  take it directly, and commands with several take a list.

The full set of commands is `Ping`, `Echo`, `Forget`, `Kick`, `SetColor`,
`SetLevel`, `SetAudioVolume`, `SetName`, `SetLanguage`, `StartSession`,
`ExtendSession`, `Pause`, `Unpause`, `SetEnvironment`, `SetEnvironmentData`,
`RemoveEnvironment`, `RenameEnvironment`, `SetDevMode` and `SetIsVisible`.
Settings that a connected headset needs to know are sent on to it.

Headset names, colours, languages, environment choices and the environment
list are saved to `server_data.txt` whenever the status changes, and loaded
again at start-up. At start-up the manager also prints its local address and
looks up its public address over the internet.

The manager reads commands from its console as well:

| command        | effect                                          |
|----------------|-------------------------------------------------|
| `save`         | write the persistent data to `server_data.txt`  |
| `load`         | reload the persistent data from that file       |
| `status`       | print the current status as JSON                |
| `> <json>`     | run a websocket command, e.g. `> "Ping"`        |

## Photo server

```
muco-photo-server
```

Announces itself as `_muco-photo._tcp.local.` and listens on port 3030.
A `POST /upload_photo` with a single-file multipart body stores the file,
under the name given in its part header, in the `photos` folder; malformed
bodies and file names containing path separators are answered with
`400 Bad Request`. `/hello/<name>` answers with a greeting.

## Client emulator

```
muco-emulator
```

Reads commands from the console, each taking the path of a `.muco_log`
file recorded by the relay server:

- `display <path>` prints the first 20 messages, the message rate, the
  throughput and a histogram of the gaps between messages;
- `play <path>` connects to the relay server and replays the messages with
  their original timing;
- `loop <path>` replays the log over and over, each time on a new
  connection.

## Using the protocol in code

The message types live in their own modules and can be used directly:

```python
from muco.client_server_msg import Address, BinaryMessageTo, decode_client_server_msg
from muco.codec import dequeue_msg

frame = BinaryMessageTo(Address.client(3), b"hello").pack()
begin, end = dequeue_msg(frame)
msg = decode_client_server_msg(frame[begin:end], sender=7)
assert msg == BinaryMessageTo(Address.client(3), b"hello")
```

- `muco.codec`: `ByteReader`, `dequeue_msg`, `DecodeError`;
- `muco.client_server_msg` and `muco.server_client_msg`: the messages
  between clients and the relay server;
- `muco.inter_client_msg`, `muco.player_data_msg`, `muco.player_data`: the
  messages headsets and the manager relay to each other;
- `muco.relay_connection`: `RelayConnection` and
  `spawn_relay_server_connection`, an asyncio connection to the relay;
- `muco.discovery`: `register_service`, `ServiceAnnouncer` and
  `find_server`.

## What it does not do

- The manager serves only the status feed and commands; it ships no web
  pages for a browser front-end.
- There is no authentication or encryption on any of the servers; they are
  meant for a trusted local network.
- Service discovery covers IPv4 multicast on the default interface only.