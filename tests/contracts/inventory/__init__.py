"""Inventory service test contracts"""
