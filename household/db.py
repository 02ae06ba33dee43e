"""
Database layer: SQLAlchemy rows for the family tables and a session-per-call client.

Any SQLAlchemy URL is accepted (Postgres in production, SQLite for tests and
local runs). Rows are returned detached; sessions use ``expire_on_commit=False``
so attributes stay readable after the call returns.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Optional, Sequence, Type, TypeVar

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    or_,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

RowT = TypeVar("RowT")

DOCUMENT_SORT_FIELDS = ("created_at", "file_name", "reference_date", "username")


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    email = Column(String, nullable=False, unique=True, index=True)
    username = Column(String, nullable=False)
    family_group = Column(String, nullable=True, index=True)
    avatar = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class SessionRow(Base):
    __tablename__ = "sessions"

    token_hash = Column(String, primary_key=True)
    profile_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)


class CategoryRow(Base):
    __tablename__ = "categorie"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_group = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    corsia_esselunga = Column(String, nullable=True)
    corsia_mercato = Column(String, nullable=True)
    corsia_carrefour = Column(String, nullable=True)
    corsia_penny = Column(String, nullable=True)
    corsia_coop = Column(String, nullable=True)


class ProductRow(Base):
    __tablename__ = "prodotti"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_group = Column(String, nullable=False, index=True)
    categoria_id = Column(Integer, ForeignKey("categorie.id"), nullable=False, index=True)
    articolo = Column(String, nullable=False)
    descrizione_articolo = Column(String, nullable=True)
    unita_misura = Column(String, nullable=True)
    preferito = Column(Boolean, nullable=False, default=False)
    prezzo = Column(Float, nullable=True)
    prezzo_esselunga = Column(Float, nullable=True)
    prezzo_mercato = Column(Float, nullable=True)
    prezzo_carrefour = Column(Float, nullable=True)
    prezzo_penny = Column(Float, nullable=True)
    prezzo_coop = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class ShoppingItemRow(Base):
    __tablename__ = "shopping_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_group = Column(String, nullable=False, index=True)
    prodotto_id = Column(Integer, nullable=True, index=True)
    user_id = Column(String, nullable=True)
    inserito_da = Column(String, nullable=True)
    articolo = Column(String, nullable=False)
    descrizione = Column(String, nullable=True)
    categoria = Column(String, nullable=True)
    supermercato = Column(String, nullable=True)
    unita_misura = Column(String, nullable=True)
    quantita = Column(Float, nullable=False, default=1)
    prezzo = Column(Float, nullable=True)
    fatto = Column(Boolean, nullable=False, default=False)
    prezzo_esselunga = Column(Float, nullable=True)
    prezzo_mercato = Column(Float, nullable=True)
    prezzo_carrefour = Column(Float, nullable=True)
    prezzo_penny = Column(Float, nullable=True)
    prezzo_coop = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class PurchaseRow(Base):
    __tablename__ = "acquisti_effettuati"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_group = Column(String, nullable=False, index=True)
    articolo = Column(String, nullable=False)
    categoria = Column(String, nullable=True)
    supermercato = Column(String, nullable=True)
    data_acquisto = Column(DateTime, nullable=False, index=True)
    quantita = Column(Float, nullable=False, default=1)
    unita_misura = Column(String, nullable=True)
    prezzo = Column(Float, nullable=True)
    prezzo_esselunga = Column(Float, nullable=True)
    prezzo_mercato = Column(Float, nullable=True)
    prezzo_carrefour = Column(Float, nullable=True)
    prezzo_penny = Column(Float, nullable=True)
    prezzo_coop = Column(Float, nullable=True)


class MessageRow(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_group = Column(String, nullable=False, index=True)
    sender_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=False, default="")
    file_url = Column(String, nullable=True)
    file_name = Column(String, nullable=True)
    file_type = Column(String, nullable=True)
    storage_path = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class DocumentRow(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_group = Column(String, nullable=False, index=True)
    uploaded_by = Column(String, ForeignKey("profiles.id"), nullable=False)
    username = Column(String, nullable=True)
    file_url = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=True)
    storage_path = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    reference_date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class _EventColumns:
    """Columns shared by the family calendar and the medication calendar."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_group = Column(String, nullable=False, index=True)
    created_by = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    categoria_eve = Column(String, nullable=False, default="ALTRO")
    start = Column(DateTime, nullable=False, index=True)
    end = Column(DateTime, nullable=False)
    repeat_pattern = Column(String, nullable=True)
    recurrence_id = Column(String, nullable=True, index=True)
    notify_at = Column(DateTime, nullable=True, index=True)
    notify_emails = Column(JSON, nullable=False, default=list)
    notified_at = Column(DateTime, nullable=True)


class EventRow(_EventColumns, Base):
    __tablename__ = "events"


class MedicationEventRow(_EventColumns, Base):
    __tablename__ = "events_farmaci"

    nome_farmaco = Column(String, nullable=False)
    quantita = Column(Float, nullable=False)
    username = Column(String, nullable=True)


class MedicationRow(Base):
    __tablename__ = "ArchivioFarmaci"

    id = Column(Integer, primary_key=True, autoincrement=True)
    family_group = Column(String, nullable=False, index=True)
    nome_farmaco = Column(String, nullable=False)
    dosaggio = Column(String, nullable=True)
    istruzioni = Column(Text, nullable=True)
    quantita_attuale = Column(Float, nullable=False, default=0)
    quantita_scortaminima = Column(Float, nullable=False, default=0)
    giorni_ricezione = Column(String, nullable=True)


class PushSubscriptionRow(Base):
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, unique=True)
    family_group = Column(String, nullable=False, index=True)
    endpoint = Column(String, nullable=False)
    subscription = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


EVENT_MODELS = (EventRow, MedicationEventRow)


class SqlDbClient:
    """
    SQLAlchemy-backed client. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("database_url is required for SqlDbClient")
        engine_kwargs: dict[str, Any] = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection, otherwise every thread sees an empty database.
            engine_kwargs.update(
                connect_args={"check_same_thread": False}, poolclass=StaticPool
            )
        else:
            engine_kwargs["pool_recycle"] = 1800
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def reset(self) -> None:
        """Drop and recreate every table (useful in tests)."""
        Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)

    # Generic row helpers

    def get(self, model: Type[RowT], row_id: Any) -> Optional[RowT]:
        with self.Session() as session:
            return session.get(model, row_id)

    def add(self, model: Type[RowT], values: dict) -> RowT:
        with self.Session() as session:
            row = model(**values)
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def add_all(self, model: Type[RowT], rows: Iterable[dict]) -> list[RowT]:
        with self.Session() as session:
            created = [model(**values) for values in rows]
            session.add_all(created)
            session.commit()
            for row in created:
                session.refresh(row)
            return created

    def update(self, model: Type[RowT], row_id: Any, values: dict) -> Optional[RowT]:
        with self.Session() as session:
            row = session.get(model, row_id)
            if row is None:
                return None
            for key, value in values.items():
                setattr(row, key, value)
            session.commit()
            session.refresh(row)
            return row

    def delete(self, model: Type[RowT], row_id: Any) -> bool:
        with self.Session() as session:
            row = session.get(model, row_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_for_family(
        self, model: Type[RowT], family_group: str, *order_by: Any
    ) -> list[RowT]:
        with self.Session() as session:
            stmt = select(model).where(model.family_group == family_group)
            if order_by:
                stmt = stmt.order_by(*order_by)
            return list(session.execute(stmt).scalars().all())

    # Profiles and sessions

    def get_profile_by_email(self, email: str) -> Optional[ProfileRow]:
        with self.Session() as session:
            stmt = select(ProfileRow).where(ProfileRow.email == email)
            return session.execute(stmt).scalar_one_or_none()

    def list_family_profiles(self, family_group: str) -> list[ProfileRow]:
        return self.list_for_family(ProfileRow, family_group, ProfileRow.username.asc())

    def create_session(
        self, token_hash: str, profile_id: str, ttl_seconds: int
    ) -> SessionRow:
        now = utcnow()
        return self.add(
            SessionRow,
            {
                "token_hash": token_hash,
                "profile_id": profile_id,
                "created_at": now,
                "expires_at": now + timedelta(seconds=ttl_seconds),
            },
        )

    def get_session_profile(self, token_hash: str) -> Optional[ProfileRow]:
        with self.Session() as session:
            row = session.get(SessionRow, token_hash)
            if row is None:
                return None
            if row.expires_at <= utcnow():
                session.delete(row)
                session.commit()
                return None
            return session.get(ProfileRow, row.profile_id)

    # Catalog

    def count_products_in_category(self, categoria_id: int) -> int:
        with self.Session() as session:
            stmt = select(func.count(ProductRow.id)).where(
                ProductRow.categoria_id == categoria_id
            )
            return int(session.execute(stmt).scalar_one())

    def list_products_with_categories(
        self, family_group: str
    ) -> list[tuple[ProductRow, Optional[CategoryRow]]]:
        with self.Session() as session:
            stmt = (
                select(ProductRow, CategoryRow)
                .join(CategoryRow, CategoryRow.id == ProductRow.categoria_id, isouter=True)
                .where(ProductRow.family_group == family_group)
                .order_by(ProductRow.articolo.asc())
            )
            return [(product, category) for product, category in session.execute(stmt).all()]

    # Shopping list

    def find_shopping_item_by_product(
        self, family_group: str, prodotto_id: int
    ) -> Optional[ShoppingItemRow]:
        with self.Session() as session:
            stmt = (
                select(ShoppingItemRow)
                .where(
                    ShoppingItemRow.family_group == family_group,
                    ShoppingItemRow.prodotto_id == prodotto_id,
                )
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none()

    def clear_shopping_items(self, family_group: str) -> int:
        with self.Session() as session:
            result = session.execute(
                delete(ShoppingItemRow).where(ShoppingItemRow.family_group == family_group)
            )
            session.commit()
            return result.rowcount or 0

    def finish_shopping(self, family_group: str, purchased_at: datetime) -> list[PurchaseRow]:
        """Move every taken item of the family list into the purchase history."""
        with self.Session() as session:
            taken = list(
                session.execute(
                    select(ShoppingItemRow)
                    .where(
                        ShoppingItemRow.family_group == family_group,
                        ShoppingItemRow.fatto.is_(True),
                    )
                    .order_by(ShoppingItemRow.id.asc())
                )
                .scalars()
                .all()
            )
            purchases = [
                PurchaseRow(
                    family_group=item.family_group,
                    articolo=item.articolo,
                    categoria=item.categoria,
                    supermercato=item.supermercato,
                    data_acquisto=purchased_at,
                    quantita=item.quantita,
                    unita_misura=item.unita_misura,
                    prezzo=item.prezzo,
                    prezzo_esselunga=item.prezzo_esselunga,
                    prezzo_mercato=item.prezzo_mercato,
                    prezzo_carrefour=item.prezzo_carrefour,
                    prezzo_penny=item.prezzo_penny,
                    prezzo_coop=item.prezzo_coop,
                )
                for item in taken
            ]
            session.add_all(purchases)
            for item in taken:
                session.delete(item)
            session.commit()
            for purchase in purchases:
                session.refresh(purchase)
            return purchases

    def list_purchases(
        self,
        family_group: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        categoria: Optional[str] = None,
    ) -> list[PurchaseRow]:
        with self.Session() as session:
            stmt = select(PurchaseRow).where(PurchaseRow.family_group == family_group)
            if start is not None:
                stmt = stmt.where(PurchaseRow.data_acquisto >= start)
            if end is not None:
                stmt = stmt.where(PurchaseRow.data_acquisto <= end)
            if categoria:
                stmt = stmt.where(PurchaseRow.categoria == categoria)
            stmt = stmt.order_by(PurchaseRow.data_acquisto.desc(), PurchaseRow.id.desc())
            return list(session.execute(stmt).scalars().all())

    # Documents

    def list_documents(
        self,
        family_group: str,
        *,
        uploader_ids: Optional[Sequence[str]] = None,
        year: Optional[int] = None,
        query: Optional[str] = None,
        sort: str = "created_at",
        ascending: bool = False,
    ) -> list[DocumentRow]:
        with self.Session() as session:
            stmt = select(DocumentRow).where(DocumentRow.family_group == family_group)
            if uploader_ids:
                stmt = stmt.where(DocumentRow.uploaded_by.in_(list(uploader_ids)))
            if year:
                stmt = stmt.where(
                    DocumentRow.reference_date >= date(year, 1, 1),
                    DocumentRow.reference_date <= date(year, 12, 31),
                )
            if query:
                pattern = f"%{query.lower()}%"
                stmt = stmt.where(
                    or_(
                        func.lower(DocumentRow.file_name).like(pattern),
                        func.lower(func.coalesce(DocumentRow.description, "")).like(pattern),
                    )
                )
            if sort == "username":
                stmt = stmt.order_by(DocumentRow.id.asc())
            else:
                column = getattr(DocumentRow, sort)
                stmt = stmt.order_by(
                    column.asc() if ascending else column.desc(), DocumentRow.id.asc()
                )
            rows = list(session.execute(stmt).scalars().all())
        if sort == "username":
            rows.sort(key=lambda row: (row.username or "").lower(), reverse=not ascending)
        return rows

    # Chat

    def list_messages(self, family_group: str) -> list[MessageRow]:
        return self.list_for_family(
            MessageRow, family_group, MessageRow.created_at.asc(), MessageRow.id.asc()
        )

    # Calendar events (family calendar and medication calendar)

    def list_events(
        self,
        model: Type[RowT],
        family_group: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[RowT]:
        with self.Session() as session:
            stmt = select(model).where(model.family_group == family_group)
            if start is not None:
                stmt = stmt.where(model.end >= start)
            if end is not None:
                stmt = stmt.where(model.start <= end)
            stmt = stmt.order_by(model.start.asc(), model.id.asc())
            return list(session.execute(stmt).scalars().all())

    def delete_series(self, model: Type[RowT], recurrence_id: str) -> int:
        with self.Session() as session:
            result = session.execute(
                delete(model).where(model.recurrence_id == recurrence_id)
            )
            session.commit()
            return result.rowcount or 0

    def replace_series(
        self,
        model: Type[RowT],
        rows: Sequence[dict],
        *,
        recurrence_id: Optional[str] = None,
        row_id: Optional[int] = None,
    ) -> list[RowT]:
        """
        Delete the old series (or the single row ``row_id`` when the event was
        not recurring) and insert the new occurrences in one transaction.
        """
        with self.Session() as session:
            if recurrence_id:
                session.execute(delete(model).where(model.recurrence_id == recurrence_id))
            elif row_id is not None:
                session.execute(delete(model).where(model.id == row_id))
            created = [model(**values) for values in rows]
            session.add_all(created)
            session.commit()
            for row in created:
                session.refresh(row)
            return created

    def series_end(self, model: Type[RowT], recurrence_id: str) -> Optional[datetime]:
        with self.Session() as session:
            stmt = select(func.max(model.end)).where(model.recurrence_id == recurrence_id)
            return session.execute(stmt).scalar_one_or_none()

    def claim_due_reminders(self, model: Type[RowT], now: datetime) -> list[RowT]:
        """Mark every due, not yet notified event as notified and return it."""
        with self.Session() as session:
            stmt = (
                select(model)
                .where(
                    model.notify_at.is_not(None),
                    model.notify_at <= now,
                    model.notified_at.is_(None),
                )
                .order_by(model.notify_at.asc())
                .with_for_update(skip_locked=True)
            )
            rows = list(session.execute(stmt).scalars().all())
            for row in rows:
                row.notified_at = now
            session.commit()
            return rows

    # Medication inventory

    def find_medication_by_name(
        self, family_group: str, nome_farmaco: str
    ) -> Optional[MedicationRow]:
        with self.Session() as session:
            stmt = (
                select(MedicationRow)
                .where(
                    MedicationRow.family_group == family_group,
                    func.lower(MedicationRow.nome_farmaco) == nome_farmaco.lower(),
                )
                .limit(1)
            )
            return session.execute(stmt).scalar_one_or_none()

    # Web push subscriptions

    def upsert_push_subscription(
        self, user_id: str, family_group: str, subscription: dict
    ) -> PushSubscriptionRow:
        """One subscription per profile; subscribing again replaces the old one."""
        with self.Session() as session:
            stmt = select(PushSubscriptionRow).where(PushSubscriptionRow.user_id == user_id)
            row = session.execute(stmt).scalar_one_or_none()
            if row is None:
                row = PushSubscriptionRow(user_id=user_id)
                session.add(row)
            row.family_group = family_group
            row.endpoint = subscription["endpoint"]
            row.subscription = subscription
            session.commit()
            session.refresh(row)
            return row

    def list_push_subscriptions(
        self, family_group: str, exclude_user_id: Optional[str] = None
    ) -> list[PushSubscriptionRow]:
        with self.Session() as session:
            stmt = select(PushSubscriptionRow).where(
                PushSubscriptionRow.family_group == family_group
            )
            if exclude_user_id:
                stmt = stmt.where(PushSubscriptionRow.user_id != exclude_user_id)
            stmt = stmt.order_by(PushSubscriptionRow.id.asc())
            return list(session.execute(stmt).scalars().all())

    def delete_push_subscription(self, user_id: str) -> int:
        with self.Session() as session:
            result = session.execute(
                delete(PushSubscriptionRow).where(PushSubscriptionRow.user_id == user_id)
            )
            session.commit()
            return result.rowcount or 0


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the first and last second of a calendar day."""
    return datetime.combine(day, time.min), datetime.combine(day, time(23, 59, 59))
