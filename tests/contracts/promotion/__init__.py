"""Promotion service test contracts"""
