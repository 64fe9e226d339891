"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- CardService：不重複卡牌號碼抽取
- NamingService：Room ID 生成
"""
