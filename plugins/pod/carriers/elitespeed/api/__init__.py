"""
EliteSpeed 插件 API
"""
