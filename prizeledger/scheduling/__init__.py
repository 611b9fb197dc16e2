"""Recurring services that trigger settlement.

Import the services from their modules
(:mod:`~prizeledger.scheduling.draw_scheduler`,
:mod:`~prizeledger.scheduling.trade_poller`,
:mod:`~prizeledger.scheduling.round_manager`); the draw scheduler depends on
:mod:`prizeledger.workflows`, which itself uses the calendar in this package.
"""
