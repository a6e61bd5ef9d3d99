"""Storyboard agents: plan generation and frame rendering"""
