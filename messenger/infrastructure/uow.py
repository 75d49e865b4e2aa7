# messenger/infrastructure/uow.py

from typing import Any, Dict, Type

from sqlalchemy.ext.asyncio import AsyncSession

from messenger.infrastructure.data_mappers import DataMapper


class UoWModel:
    def __init__(self, model: Any, uow: "UnitOfWork"):
        self.__dict__["_model"] = model
        self.__dict__["_uow"] = uow

    def __getattr__(self, key):
        return getattr(self._model, key)

    def __setattr__(self, key, value):
        setattr(self._model, key, value)
        # new models are inserted as a whole, only persisted ones become dirty
        if id(self._model) not in self._uow.new:
            self._uow.register_dirty(self._model)


class UnitOfWork:
    """Tracks new and dirty models for one session.

    ``flush`` pushes the pending changes through the registered data mappers
    and leaves the transaction open; ``commit`` flushes and then commits the
    session so several gateway calls can land atomically.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.dirty: Dict[int, Any] = {}
        self.new: Dict[int, Any] = {}
        self.mappers: Dict[Type, DataMapper] = {}

    def register_dirty(self, model: Any) -> None:
        if isinstance(model, UoWModel):
            model = model._model
        model_id = id(model)
        if model_id not in self.new:
            self.dirty[model_id] = model

    def register_new(self, model: Any) -> UoWModel:
        if isinstance(model, UoWModel):
            model = model._model
        model_id = id(model)
        self.new[model_id] = model
        return UoWModel(model, self)

    def clear(self) -> None:
        self.new.clear()
        self.dirty.clear()

    async def flush(self) -> None:
        for model in list(self.new.values()):
            await self.mappers[type(model)].insert(model)
        for model in list(self.dirty.values()):
            await self.mappers[type(model)].update(model)
        self.clear()
        await self.session.flush()

    async def commit(self) -> None:
        await self.flush()
        await self.session.commit()

    async def rollback(self) -> None:
        self.clear()
        await self.session.rollback()
