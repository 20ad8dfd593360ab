"""Database records: tools, image tasks, orders and constants."""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass, field

from imgtools import snowid
from imgtools.response import UNKNOWN_ERROR_MSG

_SCHEMA = (
    """CREATE TABLE IF NOT EXISTS tools (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL DEFAULT '',
        token_id INTEGER NOT NULL DEFAULT 0,
        save_dir TEXT NOT NULL DEFAULT '',
        price REAL NOT NULL DEFAULT 0,
        discount_price REAL NOT NULL DEFAULT 0
    )""",
    """CREATE TABLE IF NOT EXISTS constant (
        name TEXT PRIMARY KEY,
        value TEXT NOT NULL DEFAULT ''
    )""",
    *(
        f"""CREATE TABLE IF NOT EXISTS {table} (
        id TEXT NOT NULL,
        tool_id INTEGER NOT NULL,
        suffix TEXT NOT NULL DEFAULT '',
        download_times INTEGER NOT NULL DEFAULT 0,
        result TEXT NOT NULL DEFAULT '',
        created_at INTEGER NOT NULL DEFAULT 0,
        updated_at INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (id, tool_id)
    )"""
        for table in ("img_task", "img_task_backup")
    ),
    *(
        f"""CREATE TABLE IF NOT EXISTS {table} (
        id TEXT PRIMARY KEY,
        tool_id INTEGER NOT NULL DEFAULT 0,
        task_id TEXT NOT NULL DEFAULT '',
        platform INTEGER NOT NULL DEFAULT 0,
        trade_no TEXT NOT NULL DEFAULT '',
        amount INTEGER NOT NULL DEFAULT 0,
        created_at INTEGER NOT NULL DEFAULT 0,
        result_type INTEGER NOT NULL DEFAULT 0,
        reason TEXT NOT NULL DEFAULT '',
        end_at INTEGER NOT NULL DEFAULT 0,
        trade_type TEXT NOT NULL DEFAULT '',
        payer TEXT NOT NULL DEFAULT '',
        refund_channel TEXT NOT NULL DEFAULT ''
    )"""
        for table in ('"order"', "order_backup")
    ),
    """CREATE TABLE IF NOT EXISTS tools_data_use (
        tool_id INTEGER NOT NULL,
        date INTEGER NOT NULL,
        "call" INTEGER NOT NULL DEFAULT 0,
        success INTEGER NOT NULL DEFAULT 0,
        pay INTEGER NOT NULL DEFAULT 0,
        pay_amount INTEGER NOT NULL DEFAULT 0,
        refund INTEGER NOT NULL DEFAULT 0,
        refund_amount INTEGER NOT NULL DEFAULT 0,
        download INTEGER NOT NULL DEFAULT 0,
        api INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (tool_id, date)
    )""",
)

_TASK_COLUMNS = ("id", "tool_id", "suffix", "download_times", "result", "created_at", "updated_at")
_ORDER_COLUMNS = (
    "id",
    "tool_id",
    "task_id",
    "platform",
    "trade_no",
    "amount",
    "created_at",
    "result_type",
    "reason",
    "end_at",
    "trade_type",
    "payer",
    "refund_channel",
)

# Tool whose payment buys two downloads instead of one.
_DOUBLE_DOWNLOAD_TOOL = 27


class ModelError(Exception):
    """A record could not be read or written."""


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every table the service uses."""
    with conn:
        for statement in _SCHEMA:
            conn.execute(statement)


@dataclass(frozen=True)
class Tool:
    """Configuration of one tool."""

    id: int
    name: str = ""
    token_id: int = 0
    save_dir: str = ""
    price: float = 0.0
    discount_price: float = 0.0


def load_tools(conn: sqlite3.Connection) -> dict[int, Tool]:
    """All tools keyed by id."""
    rows = conn.execute(
        "SELECT id, name, token_id, save_dir, price, discount_price FROM tools"
    ).fetchall()
    return {row[0]: Tool(*row) for row in rows}


def select_constant(conn: sqlite3.Connection, name: str) -> str:
    """Value of a named constant, or an empty string when absent."""
    row = conn.execute("SELECT value FROM constant WHERE name = ?", (name,)).fetchone()
    return "" if row is None or row[0] is None else row[0]


@dataclass
class ImgTask:
    """One processing task of a tool."""

    id: str
    tool_id: int
    suffix: str = ""
    download_times: int = 0
    result: str = ""
    created_at: int = 0
    updated_at: int = 0

    def _values(self) -> tuple:
        return tuple(getattr(self, name) for name in _TASK_COLUMNS)

    def _load(self, row: tuple) -> None:
        for name, value in zip(_TASK_COLUMNS, row):
            setattr(self, name, value)

    def _save(self, conn: sqlite3.Connection, error: str) -> None:
        columns = ", ".join(_TASK_COLUMNS)
        placeholders = ", ".join("?" for _ in _TASK_COLUMNS)
        updates = ", ".join(f"{name} = excluded.{name}" for name in _TASK_COLUMNS[2:])
        try:
            with conn:
                conn.execute(
                    f"INSERT INTO img_task ({columns}) VALUES ({placeholders}) "
                    f"ON CONFLICT(id, tool_id) DO UPDATE SET {updates}",
                    self._values(),
                )
        except sqlite3.Error as exc:
            raise ModelError(error) from exc

    def add(self, conn: sqlite3.Connection) -> None:
        """Insert the task, replacing a stored one with the same key."""
        now = _now_ms()
        if not self.created_at:
            self.created_at = now
        if not self.updated_at:
            self.updated_at = now
        self._save(conn, "任务出现不可预知的错误导致失败，请将错误截图发给系统管理员")

    def _find(self, conn: sqlite3.Connection, extra: str = "", params: tuple = ()) -> None:
        if not self.id:
            raise ModelError("资源ID不能为空！")
        try:
            row = conn.execute(
                f"SELECT {', '.join(_TASK_COLUMNS)} FROM img_task "
                f"WHERE id = ? AND tool_id = ?{extra}",
                (self.id, self.tool_id, *params),
            ).fetchone()
        except sqlite3.Error as exc:
            raise ModelError(UNKNOWN_ERROR_MSG) from exc
        if row is None or not row[5]:
            raise ModelError("未找到该资源！")
        self._load(row)

    def find(self, conn: sqlite3.Connection) -> None:
        """Fill the task from the database; raises ModelError when missing."""
        self._find(conn)

    def find_with_create_time(self, conn: sqlite3.Connection, second: int) -> None:
        """Like :meth:`find`, limited to tasks created in the last ``second`` seconds."""
        self._find(conn, " AND created_at > ?", (_now_ms() - second * 1000,))

    def update(self, conn: sqlite3.Connection) -> None:
        """Store every field of the task."""
        self.updated_at = _now_ms()
        self._save(conn, UNKNOWN_ERROR_MSG)

    def reduce_download_times(self, conn: sqlite3.Connection) -> None:
        """Use up one download, in the database and on this object."""
        try:
            with conn:
                conn.execute(
                    "UPDATE img_task SET download_times = download_times - 1 "
                    "WHERE id = ? AND tool_id = ?",
                    (self.id, self.tool_id),
                )
        except sqlite3.Error as exc:
            raise ModelError(UNKNOWN_ERROR_MSG) from exc
        self.download_times -= 1


def add_img_task_down_times(conn: sqlite3.Connection, task_id: str, count: int) -> None:
    """Add ``count`` (possibly negative) downloads to every task with ``task_id``."""
    try:
        with conn:
            conn.execute(
                "UPDATE img_task SET download_times = download_times + ? WHERE id = ?",
                (count, task_id),
            )
    except sqlite3.Error as exc:
        raise ModelError(" 增加下载次数失败") from exc


@dataclass
class Order:
    """A payment order; ``result_type`` 0 is paid, 1 paying, 8 refunded."""

    id: str = field(default_factory=lambda: str(snowid.next_id()))
    tool_id: int = 0
    task_id: str = ""
    platform: int = 0
    trade_no: str = ""
    amount: int = 0
    created_at: int = 0
    result_type: int = 0
    reason: str = ""
    end_at: int = 0
    trade_type: str = ""
    payer: str = ""
    refund_channel: str = ""

    def _values(self) -> tuple:
        return tuple(getattr(self, name) for name in _ORDER_COLUMNS)

    def _load(self, row: tuple) -> None:
        for name, value in zip(_ORDER_COLUMNS, row):
            setattr(self, name, value)

    def insert(self, conn: sqlite3.Connection) -> None:
        """Insert a new order."""
        placeholders = ", ".join("?" for _ in _ORDER_COLUMNS)
        try:
            with conn:
                conn.execute(
                    f'INSERT INTO "order" ({", ".join(_ORDER_COLUMNS)}) VALUES ({placeholders})',
                    self._values(),
                )
        except sqlite3.Error as exc:
            raise ModelError("插入订单失败") from exc

    def get(self, conn: sqlite3.Connection) -> None:
        """Fill the order from the database by id; raises ModelError when missing."""
        if not self.id:
            raise ModelError("订单ID不能为空！")
        try:
            row = conn.execute(
                f'SELECT {", ".join(_ORDER_COLUMNS)} FROM "order" WHERE id = ?', (self.id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise ModelError("查询订单失败") from exc
        if row is None or not row[1]:
            raise ModelError("未找到该订单！")
        self._load(row)

    def update(self, conn: sqlite3.Connection) -> None:
        """Store every field of the order."""
        placeholders = ", ".join("?" for _ in _ORDER_COLUMNS)
        updates = ", ".join(f"{name} = excluded.{name}" for name in _ORDER_COLUMNS[1:])
        try:
            with conn:
                conn.execute(
                    f'INSERT INTO "order" ({", ".join(_ORDER_COLUMNS)}) VALUES ({placeholders}) '
                    f"ON CONFLICT(id) DO UPDATE SET {updates}",
                    self._values(),
                )
        except sqlite3.Error as exc:
            raise ModelError("更新订单失败") from exc


def get_order_by_task_id(conn: sqlite3.Connection, task_id: str) -> Order:
    """The first order of a task; raises ModelError when there is none."""
    try:
        row = conn.execute(
            f'SELECT {", ".join(_ORDER_COLUMNS)} FROM "order" WHERE task_id = ? LIMIT 1',
            (task_id,),
        ).fetchone()
    except sqlite3.Error as exc:
        raise ModelError("查询订单失败") from exc
    if row is None or not row[1]:
        raise ModelError("未找到该订单！")
    order = Order(id=row[0])
    order._load(row)
    return order


def _downloads_per_payment(order: Order) -> int:
    return 2 if order.tool_id == _DOUBLE_DOWNLOAD_TOOL else 1


def tool_add_down_times(conn: sqlite3.Connection, order: Order) -> None:
    """Grant the downloads bought by a paid order."""
    try:
        add_img_task_down_times(conn, order.task_id, _downloads_per_payment(order))
    except ModelError as exc:
        raise ModelError("付款增加下载次数失败") from exc


def tool_refund_reduce_down_times(conn: sqlite3.Connection, order: Order) -> None:
    """Withdraw the downloads of a refunded order."""
    try:
        add_img_task_down_times(conn, order.task_id, -_downloads_per_payment(order))
    except ModelError as exc:
        raise ModelError("退款减少下载次数失败") from exc