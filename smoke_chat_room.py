import asyncio
import json
import uuid

import httpx
from websockets.asyncio.client import connect

BASE_URL = 'http://127.0.0.1:8000'
WS_URI = 'ws://127.0.0.1:8000/cfhelper/api/ws?room=smoke'


async def check_health():
    print("="*50)
    print(" 验证服务健康检查 ")
    print("="*50)

    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            print(f"状态码: {resp.status_code} | {resp.text}")
        except Exception as e:
            print(f"请求失败: {e}")
            return False
    return resp.status_code == 200


async def recv_event(websocket, timeout=5.0):
    return json.loads(await asyncio.wait_for(websocket.recv(), timeout=timeout))


async def check_chat(use_mcp):
    print("\n" + "="*50)
    print(f" 验证聊天室回复 (useMCP={use_mcp})")
    print("="*50)

    try:
        async with connect(WS_URI) as websocket:
            snapshot = await recv_event(websocket)
            print(f"✅ 已连接，历史消息 {len(snapshot['messages'])} 条")

            # 读到 session_ready / session_failed 为止
            while True:
                event = await recv_event(websocket)
                print(f"   会话状态: {event}")
                if event["type"] in ("session_ready", "session_failed"):
                    break

            message_id = str(uuid.uuid4())
            await websocket.send(json.dumps({
                "type": "add",
                "id": message_id,
                "user": "smoke-test",
                "role": "user",
                "content": "How do I bind a KV namespace to a Worker?",
                "useMCP": use_mcp,
            }))
            print(" -> 已发送提问，等待助手回复...")

            for _ in range(5):
                event = await recv_event(websocket, timeout=45.0)
                if event.get("type") == "add" and event.get("role") == "assistant":
                    print(f"\n✅ 收到 {event['user']} 的回复:\n{event['content'][:500]}")
                    return
            print("\n❌ 失败: 未收到助手回复。")

    except Exception as e:
        print(f"WebSocket 遇到了错误，请确认服务已启动: {e}")


async def main():
    print("🟢 开始执行聊天室冒烟验证...\n")
    print("要求: 在运行本脚本前，请确保主程序服务已经在 http://127.0.0.1:8000 运行。\n")

    if not await check_health():
        print("❌ 服务未就绪，终止验证。")
        return
    await check_chat(use_mcp=False)
    await check_chat(use_mcp=True)

    print("\n🏁 验证结束。")

if __name__ == '__main__':
    asyncio.run(main())
