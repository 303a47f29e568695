from race.tests.mocks.connection import MockConnection

__all__ = ["MockConnection"]
