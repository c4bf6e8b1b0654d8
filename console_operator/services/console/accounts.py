"""
Console account and saved-connection management.

Statements here target pgAdmin's data store:
- user / roles_users: console logins
- servergroup / server: saved connections shown in the browser tree
- keys: the Flask-Security password salt

Logins are upserted so running the bootstrap again only refreshes passwords
and connection details.
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

from kubernetes import client
from passlib.hash import pbkdf2_sha512

from ...errors import ConsoleQueryError
from ...schemas import ServerEntry
from .query_runner import ConsoleQueryRunner, quote_literal

logger = logging.getLogger(__name__)

# Flask-Security defaults used by pgAdmin
PASSWORD_HASH_ROUNDS = 25000
SALT_QUERY = "SELECT value FROM keys WHERE name = 'SECURITY_PASSWORD_SALT';"

# Deactivates the setup account (always id 1) and truncates its hash so it can never verify
LOCKDOWN_STATEMENT = "UPDATE user SET active = 0, password = substr(password,1,50) WHERE id=1;"

DEFAULT_POSTGRES_PORT = 5432


def hash_password(password: str, salt: str) -> str:
    """Hash a password the way Flask-Security does for pgAdmin logins."""
    digest = hmac.new(salt.encode("utf-8"), password.encode("utf-8"), hashlib.sha512).digest()
    return pbkdf2_sha512.using(rounds=PASSWORD_HASH_ROUNDS).hash(base64.b64encode(digest).decode("ascii"))


async def lock_down_setup_account(runner: ConsoleQueryRunner) -> None:
    await runner.execute(LOCKDOWN_STATEMENT)


async def set_login_password(runner: ConsoleQueryRunner, username: str, password: str) -> None:
    """Create or update a console login for a database user."""
    salt = (await runner.query(SALT_QUERY)).strip()
    if not salt:
        raise ConsoleQueryError("console has no SECURITY_PASSWORD_SALT")

    login = quote_literal(username)
    hashed = quote_literal(hash_password(password, salt))

    await runner.execute(
        "BEGIN;"
        f"UPDATE user SET password = {hashed}, active = 1 WHERE email = {login};"
        f"INSERT INTO user (email, password, active) SELECT {login}, {hashed}, 1 "
        f"WHERE NOT EXISTS (SELECT 1 FROM user WHERE email = {login});"
        "INSERT INTO roles_users (user_id, role_id) "
        "SELECT u.id, r.id FROM user u, role r "
        f"WHERE u.email = {login} AND r.name = 'User' "
        "AND NOT EXISTS (SELECT 1 FROM roles_users ru WHERE ru.user_id = u.id);"
        "COMMIT;"
    )
    logger.debug(f"[CONSOLE] Set login for {username}")


async def set_saved_connection(runner: ConsoleQueryRunner, username: str, entry: ServerEntry) -> None:
    """Create or update the saved server entry for a console login."""
    login = quote_literal(username)
    group = quote_literal(entry.group)
    name = quote_literal(entry.name)
    host = quote_literal(entry.host)
    maintenance_db = quote_literal(entry.maintenance_db)
    ssl_mode = quote_literal(entry.ssl_mode)
    comment = quote_literal(entry.comment)
    port = int(entry.port)

    await runner.execute(
        "BEGIN;"
        "INSERT INTO servergroup (user_id, name) "
        f"SELECT u.id, {group} FROM user u WHERE u.email = {login} "
        f"AND NOT EXISTS (SELECT 1 FROM servergroup g WHERE g.user_id = u.id AND g.name = {group});"
        f"UPDATE server SET host = {host}, port = {port}, maintenance_db = {maintenance_db}, "
        f"username = {login}, ssl_mode = {ssl_mode}, comment = {comment} "
        f"WHERE name = {name} AND user_id = (SELECT id FROM user WHERE email = {login});"
        "INSERT INTO server "
        "(user_id, servergroup_id, name, host, port, maintenance_db, username, ssl_mode, comment) "
        f"SELECT u.id, g.id, {name}, {host}, {port}, {maintenance_db}, {login}, {ssl_mode}, {comment} "
        f"FROM user u JOIN servergroup g ON g.user_id = u.id AND g.name = {group} "
        f"WHERE u.email = {login} "
        f"AND NOT EXISTS (SELECT 1 FROM server s WHERE s.user_id = u.id AND s.name = {name});"
        "COMMIT;"
    )
    logger.debug(f"[CONSOLE] Saved connection {entry.name} for {username}")


def server_entry_from_service(
    service: Optional[client.V1Service],
    cluster_name: str,
    group: str
) -> Optional[ServerEntry]:
    """
    Build the saved-connection entry for a cluster from its primary Service.

    Returns None when the service is missing or has no cluster IP.
    """
    if service is None or service.spec is None:
        return None

    host = service.spec.cluster_ip
    if not host or host == "None":
        return None

    ports = service.spec.ports or []
    port = next((p.port for p in ports if p.name == "postgres"), None)
    if port is None:
        port = ports[0].port if ports else DEFAULT_POSTGRES_PORT

    return ServerEntry(
        name=cluster_name,
        group=group,
        host=host,
        port=port,
    )
