"""
PodFlow 后台任务
"""
