"""Pydantic models for the DevXP engine"""
