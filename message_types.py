# Client -> server
JOIN_ROOM = "joinRoom"
LEAVE_ROOM = "leaveRoom"
GET_ROOM_PEERS = "getRoomPeers"
GET_PEERS = "getPeers"  # contacts mode

# Relayed verbatim between peers, both directions
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "iceCandidate"
SIGNALING_TYPES = frozenset({OFFER, ANSWER, ICE_CANDIDATE})

# Server -> client
PEER_ID = "peerId"
PEER_JOINED = "peerJoined"
PEER_LEFT = "peerLeft"
ROOM_PEERS = "roomPeers"
PEER_LIST = "peerList"  # contacts mode
PEER_DISCONNECTED = "peerDisconnected"  # contacts mode

# **Outbound frame shapes**
# - `peerId`           = {"type", "data": "<peer id>"}
# - `peerJoined`       = {"type", "data": {"peerId"}}
# - `peerLeft`         = {"type", "data": {"peerId"}}
# - `peerDisconnected` = {"type", "data": {"peerId"}}
# - `roomPeers`        = {"type", "data": [{"id", "timestamp"}]}
# - `peerList`         = {"type", "data": [{"id", "timestamp"}]}
# - relayed            = {"type", "from", "data"}
