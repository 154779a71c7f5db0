"""Persistence Infrastructure"""
