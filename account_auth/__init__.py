"""
Authentication core of the account service.

See :mod:`.tokens`, :mod:`.sampling`, :mod:`.policy`, :mod:`.risk` and
:mod:`.devices` for the components, and :mod:`.signin`, :mod:`.password`
and :mod:`.sessions` for the flows built on them.
"""
