"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- RoomStore：程序內的房間登記表
- MembershipManager：玩家加入/斷線/重連/踢除與 master 移交
- RoomSessionController：事件分派與廣播決策
- Locks：Room 級別並發控制
- Scheduler：斷線寬限期計時器
"""
