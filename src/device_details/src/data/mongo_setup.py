import mongoengine # Import the MongoEngine library used to define models and manage MongoDB connections.

from data.device_owners import DeviceOwner
import infrastructure.config as config

"""
Initialize MongoEngine and register the application's default connection.

- Registers a connection alias named 'core' that points to the configured
    database (see infrastructure.config.Settings).
- Call this once during application startup before using models that
    specify `meta = {'db_alias': 'core'}` so they bind to this connection.
- Extra keyword arguments are passed through to the connection, e.g.
    mongo_client_class=mongomock.MongoClient for an in-memory store.
"""
def global_init(settings=None, **connection_kwargs):
    settings = settings or config.settings
    mongoengine.register_connection(
        alias='core',
        name=settings.db_name,
        host=settings.db_host,
        **connection_kwargs
    )

"""
Build the deviceDetails indexes.

Invoked once at process startup, after global_init(). Models keep
auto_create_index off, so nothing on a request path creates indexes.
"""
def ensure_indexes():
    DeviceOwner.ensure_indexes()


def global_disconnect():
    mongoengine.disconnect(alias='core')
