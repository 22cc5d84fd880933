"""聊天会话与讲解功能。"""
