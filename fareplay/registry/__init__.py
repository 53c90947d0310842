"""Casino registry service.

Casinos register with an Ed25519 key pair, prove liveness with signed
heartbeats and publish metadata changes with signed updates. Anyone can read
the directory. Write requests are authorized only by signatures:

- registration verifies against the public key in the request itself
- heartbeats and updates verify against the key stored at registration
- the inactivity sweeper needs no signature; it acts on the server clock

Storage sits behind `RegistryStore`; `InMemoryRegistry` is the bundled
implementation, optionally snapshotted to a JSON file.
"""
